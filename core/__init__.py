"""core/ -- Process kernel for idgate: configuration shared by every layer.

Layer rule: core/ has no reverse dependencies. It never imports identity/.
"""
