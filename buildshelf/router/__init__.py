from buildshelf.router.router import Router, Route, Handler, Params

__all__ = ["Router", "Route", "Handler", "Params"]
