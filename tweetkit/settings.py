"""
Explicit configuration for signers, stream parsers, paginators and the
request layer.

There is no module-level settings object: build a `Settings` and hand it
to the constructors that need it. Two clients with different settings can
live side by side in the same process.
"""

import logging


class Settings(object):
    """
    `debug`     log every signature base string, request and response
    `logger`    a `logging.Logger`; each module logs to its own
                ``logging.getLogger(__name__)`` when this is None
    """
    def __init__(self, debug=False, logger=None):
        self.debug = debug
        self.logger = logger

    @classmethod
    def default(cls):
        return cls()

    def get_logger(self, name):
        if self.logger is not None:
            return self.logger
        return logging.getLogger(name)

    def copy(self, **overrides):
        values = {'debug': self.debug, 'logger': self.logger}
        values.update(overrides)
        return Settings(**values)

    def __repr__(self):
        return "Settings(debug=%r, logger=%r)" % (self.debug, self.logger)


def resolve(settings):
    return settings if settings is not None else Settings.default()
