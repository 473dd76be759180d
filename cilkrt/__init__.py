"""Work-stealing runtime building blocks: a hyperobject hash table, its lookup cache, and fibers."""

__version__ = "0.1.0"