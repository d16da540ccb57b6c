"""Launch build agents on oVirt-managed VMs.

Brings an existing VM from whatever power state the engine reports to a
running, attached build agent: optional snapshot revert, power-up, address
discovery and an SSH bootstrap of the agent binary.
"""

__version__ = "0.1.0"
