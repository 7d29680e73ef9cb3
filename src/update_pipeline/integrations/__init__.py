"""Transport adapters.  Each submodule needs its own optional dependency."""
