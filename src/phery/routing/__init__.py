"""Routing: ordered route table matched by compiled path patterns."""

from phery.routing.router import Route, RouteMatch, Router

__all__ = ["Route", "RouteMatch", "Router"]
