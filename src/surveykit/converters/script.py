"""Embedded py3dtiles driver script.

The script is built from validated fields and serialized with ``repr`` so
that arbitrary path strings cannot break out of their literals.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from surveykit.config.constants import OUTPUT_CRS_EPSG


class ConverterScript(BaseModel):
    """Statements passed to ``python -c`` to run ``py3dtiles.convert``.

    Example:
        >>> script = ConverterScript(input_path="/data/scan.las", output_dir="/out/scan")
        >>> args = ["-c", script.render()]
    """

    model_config = ConfigDict(frozen=True)

    input_path: str = Field(min_length=1)
    output_dir: str = Field(min_length=1)
    source_crs: int | None = Field(default=None, gt=0)
    output_crs: int = Field(default=OUTPUT_CRS_EPSG, gt=0)
    jobs: int = Field(default=1, ge=1)
    overwrite: bool = True
    verbose: int = Field(default=1, ge=0)

    @field_validator("input_path", "output_dir")
    @classmethod
    def reject_nul(cls, value: str) -> str:
        if "\x00" in value:
            raise ValueError("path must not contain NUL characters")
        return value

    def render(self) -> str:
        """Render the script source."""
        crs_label = self.source_crs if self.source_crs is not None else "auto"
        crs_in = ""
        if self.source_crs is not None:
            crs_in = f"    crs_in=pyproj.CRS.from_epsg({self.source_crs:d}),\n    force_crs_in=True,\n"

        return (
            "import pyproj\n"
            "from py3dtiles.convert import convert\n"
            f"print('Converting:', {self.input_path!r})\n"
            f"print('Output:', {self.output_dir!r})\n"
            f"print('CRS: {crs_label} -> ECEF ({self.output_crs:d})')\n"
            "convert(\n"
            f"    {self.input_path!r},\n"
            f"    outfolder={self.output_dir!r},\n"
            f"{crs_in}"
            f"    crs_out=pyproj.CRS.from_epsg({self.output_crs:d}),\n"
            f"    jobs={self.jobs:d},\n"
            "    use_process_pool=False,\n"
            f"    overwrite={self.overwrite!r},\n"
            f"    verbose={self.verbose:d},\n"
            ")\n"
            "print('Conversion completed successfully.')\n"
        )
