# Domain package init
"""
StackIt Backend — Domain Rules Package

Pure, storage-agnostic rules shared by the services layer. Nothing in here
performs I/O or imports SQLAlchemy.
"""
