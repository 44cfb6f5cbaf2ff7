"""Builders for descriptors and locations with exactly known distances."""

import math

import numpy as np

from campus.models.domain import ClassLocation, EnrolledIdentity, GeoPoint

DIM = 128
EARTH_RADIUS = 6_371_000.0


def descriptor(offset=0.0, axis=0, base=None):
    """Zero vector (or `base`) shifted by `offset` along one axis."""
    values = np.zeros(DIM) if base is None else np.array(base, dtype=float)
    values[axis] += offset
    return values


def identity(identity_id, name, *descriptors):
    return EnrolledIdentity(id=str(identity_id), name=name, descriptors=tuple(descriptors))


def north_of(point, meters):
    """Point `meters` due north of `point` along the meridian."""
    return GeoPoint(point.latitude + math.degrees(meters / EARTH_RADIUS), point.longitude)


def class_location(anchor, radius=30.0, class_id="1", name="Physics 101"):
    return ClassLocation(id=class_id, anchor=anchor, radius=radius, name=name)
