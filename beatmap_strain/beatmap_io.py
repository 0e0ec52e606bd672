"""
Beatmap I/O Module

Handles beatmap loading, conversion to RawObjects and saving.
Structural problems raise ValueError; recoverable oddities (unknown keys,
missing paths) only warn.

JSON FORMAT:
    {
      "name": "...",
      "clock_rate": 1.0,
      "overall_difficulty": 8.0,
      "circle_size": 4.0,             (optional, default radius source)
      "objects": [
        {"start_time": 0, "end_time": 0, "x": 256, "y": 192,
         "radius": 36.48, "kind": "simple"},
        {"start_time": 500, "end_time": 900, "x": 100, "y": 100,
         "kind": "extended", "span_count": 1,
         "path": [[0, 0], [120, 0]],
         "nested": [{"time": 900, "x": 220, "y": 100, "kind": "tail"}]}
      ]
    }
"""

import json
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import config
from beatmap_strain.objects import (
    KIND_EXTENDED,
    KIND_SIMPLE,
    NESTED_TICK,
    NestedPoint,
    RawObject,
    make_hit_window_fn,
)


BEATMAP_KEYS = frozenset({'name', 'clock_rate', 'overall_difficulty', 'circle_size', 'objects'})
OBJECT_KEYS = frozenset({
    'start_time', 'end_time', 'x', 'y', 'radius', 'kind', 'nested', 'path', 'span_count'
})
NESTED_KEYS = frozenset({'time', 'x', 'y', 'kind'})


@dataclass
class Beatmap:
    """
    A loaded beatmap: raw objects plus the calculation inputs that travel with them.

    Attributes:
        name: Display name (file stem when loaded from disk)
        objects: Raw objects in time order
        clock_rate: Playback rate multiplier
        overall_difficulty: Hit window difficulty
    """
    name: str
    objects: List[RawObject] = field(default_factory=list)
    clock_rate: float = config.DEFAULT_CLOCK_RATE
    overall_difficulty: float = config.DEFAULT_OVERALL_DIFFICULTY

    @property
    def hit_window_fn(self) -> Callable[[str], float]:
        return make_hit_window_fn(self.overall_difficulty)

    @property
    def duration_ms(self) -> float:
        if not self.objects:
            return 0.0
        return max(o.end_time for o in self.objects) - self.objects[0].start_time


def radius_from_circle_size(circle_size: float) -> float:
    """Hit radius in playfield units for a circle size setting."""
    return 54.4 - 4.48 * circle_size


def _warn_unknown_keys(data: Dict, known: frozenset, where: str) -> None:
    unknown = sorted(set(data) - known)
    if unknown:
        warnings.warn(f"{where}: ignoring unknown keys {unknown}")


def parse_nested_point(data: Dict, where: str) -> NestedPoint:
    if not isinstance(data, dict):
        raise ValueError(f"{where}: expected a JSON object, got {type(data).__name__}")
    _warn_unknown_keys(data, NESTED_KEYS, where)
    try:
        return NestedPoint(
            time=float(data['time']),
            position=(float(data['x']), float(data['y'])),
            kind=str(data.get('kind', NESTED_TICK))
        )
    except KeyError as e:
        raise ValueError(f"{where}: missing required key {e}") from e
    except (TypeError, ValueError) as e:
        raise ValueError(f"{where}: {e}") from e


def parse_object(data: Dict, index: int, default_radius: float) -> RawObject:
    """
    Convert one JSON object entry to a RawObject.

    Parameters:
        data: Object dictionary
        index: Position in the object list (for messages)
        default_radius: Radius used when the entry has none

    Returns:
        RawObject

    Raises:
        ValueError: If a required key is missing or has the wrong type
    """
    where = f"object {index}"
    if not isinstance(data, dict):
        raise ValueError(f"{where}: expected a JSON object, got {type(data).__name__}")
    _warn_unknown_keys(data, OBJECT_KEYS, where)

    try:
        start_time = float(data['start_time'])
        position = (float(data['x']), float(data['y']))
        end_time = float(data.get('end_time', start_time))
        radius = float(data.get('radius', default_radius))
        span_count = int(data.get('span_count', 1))
        path = tuple((float(p[0]), float(p[1])) for p in data.get('path', []))
    except KeyError as e:
        raise ValueError(f"{where}: missing required key {e}") from e
    except (TypeError, ValueError, IndexError) as e:
        raise ValueError(f"{where}: {e}") from e

    kind = str(data.get('kind', KIND_SIMPLE))

    nested_data = data.get('nested', [])
    if not isinstance(nested_data, list):
        raise ValueError(f"{where}: nested must be a list")
    nested = tuple(
        parse_nested_point(point, f"{where} nested {j}")
        for j, point in enumerate(nested_data)
    )

    if kind == KIND_EXTENDED and not path:
        warnings.warn(f"{where}: extended object without path, using its head position")
        path = ((0.0, 0.0),)

    return RawObject(
        start_time=start_time,
        end_time=end_time,
        position=position,
        radius=radius,
        kind=kind,
        nested=nested,
        path=path,
        span_count=span_count
    )


def beatmap_from_dict(data: Dict, name: Optional[str] = None) -> Beatmap:
    """
    Build a Beatmap from its JSON dictionary.

    Raises:
        ValueError: If the structure is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"Beatmap must be a JSON object, got {type(data).__name__}")
    _warn_unknown_keys(data, BEATMAP_KEYS, 'beatmap')

    objects_data = data.get('objects')
    if not isinstance(objects_data, list):
        raise ValueError("Beatmap must contain an 'objects' list")

    circle_size = float(data.get('circle_size', config.DEFAULT_CIRCLE_SIZE))
    default_radius = radius_from_circle_size(circle_size)

    beatmap = Beatmap(
        name=str(data.get('name', name or 'untitled')),
        objects=[parse_object(o, i, default_radius) for i, o in enumerate(objects_data)],
        clock_rate=float(data.get('clock_rate', config.DEFAULT_CLOCK_RATE)),
        overall_difficulty=float(data.get('overall_difficulty', config.DEFAULT_OVERALL_DIFFICULTY))
    )

    validate_beatmap(beatmap)
    return beatmap


def load_beatmap(file_path: Union[str, Path]) -> Beatmap:
    """
    Load a beatmap JSON file.

    Parameters:
        file_path: Path to the JSON file

    Returns:
        Beatmap named after the file stem unless the file sets a name

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the file is not valid beatmap JSON
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Beatmap file not found: {path}")

    with open(path, 'r') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

    return beatmap_from_dict(data, name=path.stem)


def object_to_dict(obj: RawObject) -> Dict:
    data = {
        'start_time': obj.start_time,
        'end_time': obj.end_time,
        'x': obj.position[0],
        'y': obj.position[1],
        'radius': obj.radius,
        'kind': obj.kind,
    }
    if obj.is_extended:
        data['span_count'] = obj.span_count
        data['path'] = [[p[0], p[1]] for p in obj.path]
        data['nested'] = [
            {'time': n.time, 'x': n.position[0], 'y': n.position[1], 'kind': n.kind}
            for n in obj.nested
        ]
    return data


def beatmap_to_dict(beatmap: Beatmap) -> Dict:
    return {
        'name': beatmap.name,
        'clock_rate': beatmap.clock_rate,
        'overall_difficulty': beatmap.overall_difficulty,
        'objects': [object_to_dict(o) for o in beatmap.objects]
    }


def save_beatmap(beatmap: Beatmap, output_path: Union[str, Path]) -> None:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(beatmap_to_dict(beatmap), f, indent=2)


def validate_beatmap(beatmap: Beatmap, max_objects: Optional[int] = None) -> None:
    """
    Validate beatmap-level inputs for processing.

    Object ordering and geometry are checked by the builder.

    Parameters:
        beatmap: Beatmap to validate
        max_objects: Maximum allowed object count (None = use config)

    Raises:
        ValueError: If the beatmap is invalid
    """
    if max_objects is None:
        max_objects = config.MAX_OBJECT_COUNT

    if not (beatmap.clock_rate > 0):
        raise ValueError(f"clock_rate must be positive, got {beatmap.clock_rate}")

    if len(beatmap.objects) > max_objects:
        raise ValueError(
            f"Beatmap has {len(beatmap.objects)} objects, exceeding maximum ({max_objects})"
        )


def list_beatmap_files(directory: Union[str, Path]) -> List[Path]:
    """Sorted list of *.json files directly inside a directory."""
    return sorted(p for p in Path(directory).iterdir() if p.suffix.lower() in config.SUPPORTED_FORMATS)
