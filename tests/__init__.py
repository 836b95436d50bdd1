"""
RouteX Survey Core Test Suite

Structure:
- unit/: pose store, quaternions, geodesy, road graph, capture, config/logging
- integration/: HTTP service and end-to-end survey flow
"""
