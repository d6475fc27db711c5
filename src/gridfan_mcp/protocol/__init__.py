"""Protocol layer: command table, exchanges, engine, and reply parsing."""

from .commands import Command, CommandDefinition, lookup
from .engine import CommandEngine
from .exchange import Exchange, Outcome
