"""
Shared primitives: sample/pose/graph dataclasses, geodesy helpers,
JSON logging and YAML configuration.
"""
