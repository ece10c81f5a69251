# traceability/services/__init__.py
# Import submodules directly (resolver, graph_builder, reconciliation, exercises).
