import os
import shutil
import tempfile
import unittest

from qda_package.result_store import InMemoryResultStore, JsonFileResultStore


class InMemoryResultStoreTests(unittest.TestCase):

    def test_save_and_load(self):
        store = InMemoryResultStore()
        self.assertIsNone(store.load('v1_abc'))
        store.save('v1_abc', {'summaryStats': {'totalUsers': 3}})
        self.assertEqual(store.load('v1_abc'), {'summaryStats': {'totalUsers': 3}})
        self.assertEqual(len(store), 1)

    def test_loaded_payload_is_a_copy(self):
        store = InMemoryResultStore()
        store.save('key', {'values': [1, 2]})
        store.load('key')['values'].append(3)
        self.assertEqual(store.load('key'), {'values': [1, 2]})

    def test_clear(self):
        store = InMemoryResultStore()
        store.save('a', {})
        store.save('b', {})
        store.clear()
        self.assertEqual(len(store), 0)


class JsonFileResultStoreTests(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.directory = os.path.join(self.temp_dir, 'cache')
        self.store = JsonFileResultStore(self.directory)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_missing_key(self):
        self.assertIsNone(self.store.load('v1_missing'))

    def test_save_creates_directory(self):
        payload = {'tippingPoints': {'totalCopies': {'appSessions': 4, 'paywallViews': 'N/A'}}}
        self.store.save('v1_abc', payload)
        self.assertTrue(os.path.exists(os.path.join(self.directory, 'v1_abc.json')))
        self.assertEqual(self.store.load('v1_abc'), payload)

    def test_key_is_sanitized(self):
        self.store.save('../escape/key', {'a': 1})
        self.assertEqual(os.listdir(self.directory), ['___escape_key.json'])
        self.assertEqual(self.store.load('../escape/key'), {'a': 1})

    def test_corrupt_file_is_a_miss(self):
        os.makedirs(self.directory)
        with open(os.path.join(self.directory, 'v1_bad.json'), 'w', encoding='utf-8') as f:
            f.write('{not json')
        with self.assertLogs('qda_package.result_store', level='WARNING'):
            self.assertIsNone(self.store.load('v1_bad'))

    def test_clear(self):
        self.store.save('one', {})
        self.store.save('two', {})
        self.store.clear()
        self.assertEqual(os.listdir(self.directory), [])
        JsonFileResultStore(os.path.join(self.temp_dir, 'never-created')).clear()


if __name__ == "__main__":
    unittest.main()
