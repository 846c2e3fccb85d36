from types import SimpleNamespace

import numpy as np
import pytest


class FakeSession:
    """Stands in for onnxruntime.InferenceSession, returning a fixed probability map."""

    def __init__(self, text_regions, input_name="x"):
        self.text_regions = text_regions
        self.input_name = input_name
        self.calls = []

    def get_inputs(self):
        return [SimpleNamespace(name=self.input_name)]

    def run(self, output_names, feeds):
        tensor = feeds[self.input_name]
        self.calls.append(tensor.shape)
        _, _, height, width = tensor.shape
        pred = np.zeros((1, 1, height, width), dtype=np.float32)
        for top, bottom, left, right in self.text_regions:
            pred[0, 0, top:bottom, left:right] = 0.95
        return [pred]


@pytest.fixture
def fake_session_factory():
    return FakeSession


@pytest.fixture
def blank_image():
    image = np.full((64, 128, 3), 255, dtype=np.uint8)
    image[20:40, 30:90] = (0, 0, 0)
    return image


@pytest.fixture
def toy_model_path(tmp_path):
    """A DB-shaped ONNX model: mean over channels then sigmoid, so bright pixels read as text."""
    onnx = pytest.importorskip("onnx")
    from onnx import TensorProto, helper

    image = helper.make_tensor_value_info("image", TensorProto.FLOAT, [1, 3, None, None])
    prob = helper.make_tensor_value_info("prob", TensorProto.FLOAT, [1, 1, None, None])
    nodes = [
        helper.make_node("ReduceMean", ["image"], ["mean"], axes=[1], keepdims=1),
        helper.make_node("Sigmoid", ["mean"], ["prob"]),
    ]
    graph = helper.make_graph(nodes, "toy_db", [image], [prob])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8

    path = tmp_path / "toy_db.onnx"
    onnx.save(model, str(path))
    return path


@pytest.fixture
def dark_page():
    image = np.zeros((64, 128, 3), dtype=np.uint8)
    image[20:40, 30:90] = 255
    return image
