"""Message queue subpackage; it currently holds no modules."""