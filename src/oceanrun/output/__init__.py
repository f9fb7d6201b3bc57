"""
The OUTPUT layer persists model state: HDF5 snapshots, checkpoints, readers
and VTU export.
"""
from oceanrun.output.writers import OutputWriter, HDF5OutputWriter, normalize_indices
from oceanrun.output.checkpointer import Checkpointer, restore_checkpoint
from oceanrun.output.reader import FieldTimeSeries, list_outputs, read_grid
from oceanrun.output.export import export_to_vtu

__all__ = [
    "OutputWriter",
    "HDF5OutputWriter",
    "normalize_indices",
    "Checkpointer",
    "restore_checkpoint",
    "FieldTimeSeries",
    "list_outputs",
    "read_grid",
    "export_to_vtu",
]
