import contextlib
import io
import json
import os
import shutil
import tempfile
import unittest

import pandas as pd

from qda_package import __version__
from qda_package.cli import main, read_rows


class CliTests(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.temp_dir = tempfile.mkdtemp()
        rows = []
        for i in range(40):
            rows.append({
                'Distinct ID': f'user_{i}',
                'E. Total Copies': i % 3,
                'B. Total Deposits ($)': (i % 4) * 250,
                'M. Total Subscriptions': 1 if i % 10 == 0 else 0,
                'H. Regular PDP Views': i % 5,
                'N. App Sessions': i % 7,
            })
        cls.rows = rows
        cls.csv_path = os.path.join(cls.temp_dir, 'export.csv')
        pd.DataFrame(rows).to_csv(cls.csv_path, index=False)
        cls.json_path = os.path.join(cls.temp_dir, 'export.json')
        with open(cls.json_path, 'w', encoding='utf-8') as f:
            json.dump({'rows': rows}, f)

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(cls.temp_dir, ignore_errors=True)

    def _run(self, argv):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main(argv)
        return code, out.getvalue()

    def test_version(self):
        code, out = self._run(['--version'])
        self.assertEqual(code, 0)
        self.assertIn(__version__, out)

    def test_read_rows(self):
        self.assertEqual(len(read_rows(self.csv_path)), 40)
        self.assertEqual(read_rows(self.json_path), self.rows)

    def test_analyze_writes_results(self):
        output = os.path.join(self.temp_dir, 'results.json')
        code, out = self._run(['analyze', self.csv_path, '--output', output, '--top', '3'])
        self.assertEqual(code, 0)
        self.assertIn('Premium:', out)
        self.assertIn('Deposit Funds (40 users', out)
        with open(output, 'r', encoding='utf-8') as f:
            payload = json.load(f)
        self.assertEqual(payload['summaryStats']['totalUsers'], 40)
        self.assertIn('copies', payload['regressionResults'])

    def test_csv_and_json_inputs_agree(self):
        csv_out = os.path.join(self.temp_dir, 'csv.json')
        json_out = os.path.join(self.temp_dir, 'json.json')
        self._run(['analyze', self.csv_path, '--output', csv_out])
        self._run(['analyze', self.json_path, '--output', json_out])
        with open(csv_out, 'r', encoding='utf-8') as f:
            from_csv = json.load(f)
        with open(json_out, 'r', encoding='utf-8') as f:
            from_json = json.load(f)
        self.assertEqual(from_csv['dataHash'], from_json['dataHash'])

    def test_cache_dir(self):
        cache_dir = os.path.join(self.temp_dir, 'cache')
        self._run(['analyze', self.csv_path, '--cache-dir', cache_dir])
        self.assertEqual(len(os.listdir(cache_dir)), 1)

    def test_missing_input(self):
        code, _ = self._run(['analyze', os.path.join(self.temp_dir, 'nope.csv')])
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
