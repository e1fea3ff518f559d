"""Prisma schema parsing: model names, fields and declared relations."""
import re
from pathlib import Path
from typing import List, Union

from .models import Field, Model, Relationship


# A block closes on its own line, or on the opening line for `model A {}`
MODEL_BLOCK = re.compile(
    r"^model\s+(\w+)\s*\{(?:([^\n]*?)\}|([\s\S]*?)\n\s*\})", re.MULTILINE
)
FIELD_LINE = re.compile(r"^\s*(\w+)\s+([^\s]+).*$", re.MULTILINE)
RELATION_LINE = re.compile(r"^\s*(\w+)\s+(\w+)(\[\])?\??\s+@relation", re.MULTILINE)


def parse_schema_text(text: str) -> List[Model]:
    """Extract models from Prisma schema source.

    Only fields carrying an `@relation` attribute count as relationships;
    this is the side of a relation that owns the foreign key.

    Args:
        text: Schema file content

    Returns:
        Models in declaration order
    """
    models = []

    for match in MODEL_BLOCK.finditer(text):
        name = match.group(1)
        body = match.group(2) if match.group(2) is not None else match.group(3)

        fields = tuple(
            Field(name=m.group(1), type=m.group(2))
            for m in FIELD_LINE.finditer(body)
        )
        relationships = tuple(
            Relationship(field=m.group(1), model=m.group(2), is_array=bool(m.group(3)))
            for m in RELATION_LINE.finditer(body)
        )
        models.append(Model(name=name, fields=fields, relationships=relationships))

    return models


class SchemaParser:
    """Load models from a schema.prisma file."""

    def __init__(self, schema_path: Union[str, Path]):
        self.schema_path = Path(schema_path)

    def parse(self) -> List[Model]:
        """Parse the schema file.

        Returns:
            Models in declaration order

        Raises:
            FileNotFoundError: If the schema file does not exist
            ValueError: If the file cannot be decoded or declares no models
        """
        if not self.schema_path.is_file():
            raise FileNotFoundError(f"Schema file not found: {self.schema_path}")

        try:
            text = self.schema_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ValueError(f"Schema file is not valid UTF-8: {self.schema_path} ({e})")

        models = parse_schema_text(text)
        if not models:
            raise ValueError(f"No model blocks found in {self.schema_path}")
        return models
