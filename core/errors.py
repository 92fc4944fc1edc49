"""
Relief Studio - Error Types
"""


class ReliefError(ValueError):
    """Base class for all relief pipeline failures."""


class ImageInputError(ReliefError):
    """Image could not be decoded or has unusable dimensions."""


class SettingsError(ReliefError):
    """Settings record out of range."""


class LayerOrderError(ReliefError):
    """Invalid layer list or layer edit."""


class MeshGeometryError(ReliefError):
    """Malformed geometry handed to the mesh builder or STL writer."""
