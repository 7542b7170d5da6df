from strided import adapt

# Shape a plain list as a 2 x 3 matrix and write through the view
values = [0] * 6
matrix = adapt(values, (2, 3))
for i in range(2):
    for j in range(3):
        matrix[i, j] = 10 * i + j
print("row-major buffer:", values)

# Same list seen column-major: element (1, 0) is the second buffer slot
columns = adapt(values, (3, 2), "column_major")
print("column view (1, 0):", columns[1, 0])

# A short list grows to fit the requested shape
grown = [1, 2]
adapt(grown, (2, 2))
print("grown list:", grown)
