"""Example running an independent MATLAB job end to end.

Stages the job data written by MATLAB under ``local_root``, submits one
Batch task per MATLAB task, polls until the job is finished, then fetches
the results back into ``local_root`` and deletes the job.

The Batchfile must describe the accounts (see ``Batchfile.example``), and
both account keys must have been stored with
``batchmdcs credentials store <account-name>``.
"""

import argparse
import logging

from batchmdcs.cluster import BatchCluster
from batchmdcs.logging import configure_logging

logger = logging.getLogger("independent_job")


def main():
    parser = argparse.ArgumentParser(
        description="Run an independent MATLAB job on an Azure Batch pool"
    )
    parser.add_argument("batchfile", help="Path to the Batchfile to load.")
    parser.add_argument("local_root", help="Local MATLAB job storage location.")
    parser.add_argument("--env", default="default", help="Batchfile environment.")
    parser.add_argument("--pool", default="mdcs", help="Pool to run on.")
    parser.add_argument("--user", default="alice")
    parser.add_argument("--job-id", default="1")
    parser.add_argument("--tasks", type=int, default=4)
    parser.add_argument("--matlab-root", default="C:\\Program Files\\MATLAB\\R2016b")
    args = parser.parse_args()

    configure_logging()

    cluster = BatchCluster.from_env(args.batchfile, env=args.env)
    job_data_directory = f"Job{args.job_id}"

    cluster.stage_job_data(args.user, args.local_root, job_data_directory)
    batch_job_id = cluster.submit_job(
        args.pool,
        args.user,
        args.job_id,
        args.tasks,
        license_user_token="",
        license_web_id="",
        license_number="",
        job_data_directory=job_data_directory,
        communicating=False,
        task_locations=[
            f"{job_data_directory}/Task{t}" for t in range(1, args.tasks + 1)
        ],
        local_matlab_root=args.matlab_root,
        local_matlab_exe=args.matlab_root + "\\bin\\worker.bat",
    )
    logger.info("Submitted %s", batch_job_id)

    status = cluster.wait_for_job(batch_job_id, poll_interval=15)
    logger.info("Job %s: %s", batch_job_id, " ".join(status))

    cluster.fetch_job_results(args.user, args.local_root, job_data_directory)
    cluster.delete_job(batch_job_id, args.user, job_data_directory)


if __name__ == "__main__":
    main()
