"""Entry point: run the deployed program, falling back to the bundled one."""

import runpy

from autodidact.config import get_program_path


def main() -> None:
    """Run the program at AD_PROGRAM_PATH, or the bundled program before first deploy."""
    path = get_program_path()
    if path.is_file():
        runpy.run_path(str(path), run_name="__main__")
        return

    from autodidact.program import main as run_bundled

    run_bundled()


if __name__ == "__main__":
    main()
