import os
import json
import logging
import threading

from .errors import StorageError

USERS = 'users'
JOBS = 'jobs'
APPLICATIONS = 'applications'
COLLECTIONS = (USERS, JOBS, APPLICATIONS)


class RecordStore:
    """
    Whole-collection JSON documents, one file per collection.

    Reads never fail: a missing or corrupt document reads as an empty list.
    Writes replace the whole document through a temporary file so a reader
    never observes a half-written collection. Nothing is cached.

    ``lock`` serializes read-modify-write sequences across threads; callers
    that read a collection, change it and write it back hold it for the
    whole sequence.
    """

    def __init__(self, data_dir):
        self.data_dir = data_dir
        self.lock = threading.RLock()
        os.makedirs(self.data_dir, exist_ok=True)

    def path_for(self, collection):
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
        return os.path.join(self.data_dir, f'{collection}.json')

    def read(self, collection):
        path = self.path_for(collection)
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"Could not read {path}, treating as empty: {e}")
            return []
        if not isinstance(data, list):
            logging.warning(f"{path} does not hold a JSON array, treating as empty")
            return []
        return data

    def write(self, collection, records):
        path = self.path_for(collection)
        tmp = path + '.tmp'
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(list(records), f, indent=2)
            os.replace(tmp, path)
        except OSError as e:
            logging.error(f"Failed writing {path}: {e}")
            if os.path.exists(tmp):
                os.remove(tmp)
            raise StorageError(f"Could not write {collection}: {e}") from e

    def initialize(self):
        """Creates an empty document for every collection that has none yet."""
        with self.lock:
            for collection in COLLECTIONS:
                if not os.path.exists(self.path_for(collection)):
                    self.write(collection, [])
