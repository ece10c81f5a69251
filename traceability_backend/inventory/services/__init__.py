# inventory/services/__init__.py
#
# Import service modules directly (inventory.services.batch_state, ...).
# The models import inventory.services.units, so nothing is re-exported here.
