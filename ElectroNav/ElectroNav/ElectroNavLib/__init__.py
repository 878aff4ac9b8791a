from ElectroNavLib.errors import (
    ElectroNavError,
    InvalidArgument,
    InvariantViolation,
    OutOfRange,
    UnknownElectrodeType,
)
from ElectroNavLib.registration import RigidTransform
from ElectroNavLib.grid_model import GridHole, GridModel, get_grid
from ElectroNavLib.electrode_catalog import ElectrodeCatalog, ElectrodeType
from ElectroNavLib.electrode_model import Contact, Electrode
from ElectroNavLib.history import ElectrodeRecord, HistoryStore, SessionRecord
from ElectroNavLib.session import Session
from ElectroNavLib.volume import (
    AtlasConvention,
    LayerStack,
    LoadedVolume,
    NiftiVolumeLoader,
    VolumeLayer,
)
from ElectroNavLib.slice_resolver import SliceDescriptor, composite_slices, resolve_slice
from ElectroNavLib.structure_outline import StructureOutline, outline_structure, trace_boundaries
from ElectroNavLib.config import Defaults, load_defaults
from ElectroNavLib.navigator import NavigatorLogic
