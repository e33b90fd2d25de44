"""
Shop business modules.

Each module is thin glue over ``shop_kernel`` services and ``shop_engines``
calculations, with its own config schema, DTOs, ORM tables and a service
facade that owns the transaction boundary.
"""
