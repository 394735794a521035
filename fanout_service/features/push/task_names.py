"""Task names of the push delivery pipeline."""

FANOUT_CHANNEL = "push.fanout_channel"
DELIVER_BATCH = "push.deliver_batch"
ROTATE_DEVICE_IDS = "push.rotate_device_ids"
REMOVE_DEVICE_IDS = "push.remove_device_ids"

ALL_TASKS = (FANOUT_CHANNEL, DELIVER_BATCH, ROTATE_DEVICE_IDS, REMOVE_DEVICE_IDS)
