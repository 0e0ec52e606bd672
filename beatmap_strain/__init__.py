"""
beatmap-strain - Source Modules

This package contains the core modules for strain-based difficulty calculation:
- objects: Raw gameplay event model and hit windows
- geometry: Planar vector helpers and polyline evaluation
- preprocessing: DifficultyObject builder (cursor simulation, angles, travel)
- evaluators: Per-object difficulty evaluators (aim, speed, flow aim, alt)
- skills: Strain accumulators and section peak extraction
- aggregation: Peak reduction, weighting and top-weighted counts
- timebase: Section time axes and strain curve sampling
- metrics: Per-skill orchestration over a built sequence
- events: Strain spike and sustained section detection
- beatmap_io: Beatmap JSON loading and saving
- export: JSON and plot generation
"""

__version__ = "1.0.0"
