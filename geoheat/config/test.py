QUERY_CHUNK_SIZE = 3
MAINTENANCE_BATCH_SIZE = 4
