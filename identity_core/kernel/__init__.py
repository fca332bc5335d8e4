"""
Kernel layer: store schema, document collections and the identity core.

Layer rule: nothing under kernel/ imports from identity_core.bootstrap.
"""
