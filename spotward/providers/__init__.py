"""Cloud adapters implementing the ports in ``spotward.types``."""
