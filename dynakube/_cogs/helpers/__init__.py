"""
General-purpose helpers not related to the control plane or to the resources,
which are used to prepare and control the runtime environment.

Helpers do not depend on anything else in the package. As a rule of thumb,
they MUST be abstracted from the package to such an extent that they could be
extracted as reusable libraries.
"""
