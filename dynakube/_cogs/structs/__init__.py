"""
All the structures to identify, address, decode, and patch the resources.

All the functions here are purely data-manipulative and computational.
No external calls or any i/o activities are done here.
"""
