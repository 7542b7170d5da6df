import numpy as np

from strided import FunctionExpression, Tensor, adapt

# Owning tensors take the evaluated buffer
table = Tensor((1,))
table.assign(FunctionExpression((3, 4), lambda i, j: i * j))
print("multiplication table:", table.to_list())

# Transposing in place is safe: the right-hand side is evaluated first
square = Tensor.from_nested([[1, 2], [3, 4]])
square.assign(FunctionExpression((2, 2), lambda i, j: square[j, i]))
print("transposed:", square.to_list())

# Adaptors copy the result back into the container they reference;
# numpy targets keep their length, so the result has to fit
target = np.zeros(6)
view = adapt(target, (2, 3))
view.assign(np.arange(6).reshape(3, 2))
print("numpy target:", target.tolist(), "shape", view.shape)

# Lists grow to fit and keep the value type of the computed elements
row = [0]
adapt(row).assign(FunctionExpression((4,), lambda i: i * i))
print("list target:", row)
