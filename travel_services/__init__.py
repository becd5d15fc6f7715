"""
Cross-module services: access scoping, customer assignments, ledger
propagation and the back-office unit of work.

Depends on ``travel_kernel`` and ``travel_modules``; nothing below this
layer imports from it.
"""
