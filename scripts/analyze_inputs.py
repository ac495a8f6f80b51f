#!/usr/bin/env python3
import sys
from pathlib import Path
from collections import Counter

sys.path.append(str(Path(__file__).resolve().parents[1] / 'src'))
from dolibarr_convert.io import read_table  # type: ignore
from dolibarr_convert.mapping import auto_detect_mappings, get_missing_required_columns  # type: ignore
from dolibarr_convert.normalize import parse_price  # type: ignore

INPUT_EXTS = ('.xlsx', '.xlsm', '.xls', '.csv')


def main():
    root = Path(sys.argv[1] if len(sys.argv) > 1 else 'data/input')
    files = [p for p in sorted(root.iterdir()) if p.suffix.lower() in INPUT_EXTS] if root.exists() else []
    if not files:
        print(f'No spreadsheet found in {root}')
        return

    targets = Counter()
    for p in files:
        table = read_table(p)
        mappings = auto_detect_mappings(table.headers)
        mapped = {m.target_id: m.source_index for m in mappings if m.target_id}
        targets.update(mapped.keys())

        print(f'\n{p.name} [{table.sheet_name}] header row {table.header_row}, {table.total_rows} rows')
        for m in mappings:
            print(f'- {m.source_header}: {m.target_id or "(unmapped)"}')
        missing = get_missing_required_columns(mappings)
        if missing:
            print('Missing required: ' + ', '.join(f.label for f in missing))
        if 'price' in mapped:
            values = table.column_values(mapped['price'])
            unparsable = sum(1 for v in values if v is not None and not parse_price(v))
            print(f'Unparsable prices: {unparsable}')

    print('\nTarget fields detected across files:')
    for k, v in targets.most_common():
        print(f'- {k}: {v}')

if __name__ == '__main__':
    main()
