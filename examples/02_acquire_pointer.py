import ctypes

from strided import Ownership, Pointer, adapt_pointer


def report(memory):
    print("released block of", len(memory), "elements")


# Borrow ctypes memory: the adaptor never frees it
raw = (ctypes.c_double * 4)()
borrowed = adapt_pointer(raw, 4, Ownership.NONE, (2, 2))
borrowed[1, 1] = 3.5
print("ctypes memory:", list(raw))

# Hand a block over to the adaptor; it is released when the block closes
block = Pointer.allocate(6, "int32", deleter=report)
with adapt_pointer(block.move(), 6, Ownership.ACQUIRE, (2, 3)) as owned:
    owned.assign([[1, 2, 3], [4, 5, 6]])
    print("owned contents:", owned.to_list())
print("moved-from handle valid:", block.valid)
