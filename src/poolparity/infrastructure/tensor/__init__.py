from ._tensor import Tensor
from ._tensor_builder import DEFAULT_INPUT_SHAPES, arange, generate_inputs, rand
