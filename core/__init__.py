"""core/ -- Kernel: configuration, domain models, error kinds, capability ports.

Layer rule: core/ imports nothing from api/, auth/, services/, or storage/.
"""
