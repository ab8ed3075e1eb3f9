"""HTTP routers mounted by ``listshub.main``."""
