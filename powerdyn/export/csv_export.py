"""Export one decoded model as CSV."""
from __future__ import annotations

import csv
import io

from powerdyn.decode.records import DecodedRecords, IndexedRecords


def export_csv(records: DecodedRecords) -> str:
    """Export records as CSV string. Missing cells are left empty."""
    output = io.StringIO()
    writer = csv.writer(output)

    if isinstance(records, IndexedRecords):
        # Rows may differ in length; pad the header to the widest row
        width = max((len(r) for r in records.fields), default=0)
        writer.writerow([f"field_{i}" for i in range(1, width + 1)])
        for values in records.fields:
            writer.writerow(values)
        return output.getvalue()

    # Header
    writer.writerow(records.field_names)
    for row in records.rows():
        writer.writerow(["" if v is None else v for v in row.values()])

    return output.getvalue()
