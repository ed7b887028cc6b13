from .vault_events import *
