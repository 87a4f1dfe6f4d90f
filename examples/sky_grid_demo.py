from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image

from warpgrid import OrthographicTransform, SphericalFrame, plot


def _render_sky_grid(*, lat0: float, grid: bool) -> np.ndarray:
    sky = OrthographicTransform(lon0=30.0, lat0=lat0, radius=0.45, centre=(0.5, 0.5))
    p = plot(sky, SphericalFrame(), width=800, grid=grid, labelling="interior")
    p.grid()
    p.curve((0.0, 0.0), (90.0, 45.0))
    p.mark([(30.0, lat0), (60.0, 20.0)], "plus")
    p.text("pole", (0.0, 90.0), "BC")
    return p.backend.to_rgba()


def _save_rgba(path: Path, frame: np.ndarray) -> None:
    Image.fromarray(frame).save(path)


def main() -> None:
    out_dir = Path(__file__).resolve().parent / "out"
    out_dir.mkdir(parents=True, exist_ok=True)

    equator_path = out_dir / "sky_grid_equator.png"
    tilted_path = out_dir / "sky_grid_tilted.png"
    _save_rgba(equator_path, _render_sky_grid(lat0=0.0, grid=True))
    _save_rgba(tilted_path, _render_sky_grid(lat0=40.0, grid=True))

    print(f"wrote {equator_path}")
    print(f"wrote {tilted_path}")


if __name__ == "__main__":
    main()
