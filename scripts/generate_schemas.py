"""Generate JSON schemas from Pydantic models and save to schemas/ directory."""

import json
from pathlib import Path

from normledger._internal.schemas import artifact_schemas


def generate_schemas():
    """Generate JSON schemas for all persisted artifacts."""
    schemas_dir = Path(__file__).parent.parent / "schemas"
    schemas_dir.mkdir(exist_ok=True)

    for name, schema in artifact_schemas().items():
        schema_path = schemas_dir / name
        with open(schema_path, 'w', encoding='utf-8') as f:
            json.dump(schema, f, indent=2, ensure_ascii=False)
        print(f"Generated: {schema_path}")

    print("\nSchema generation complete!")


if __name__ == "__main__":
    generate_schemas()
