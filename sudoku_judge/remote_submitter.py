"""
Remote submitter for the judge HTTP API.

Submissions are graded inline by the server, so a single POST returns the
verdict. Batches are sent concurrently with a bounded number of requests in
flight.
"""
import argparse
import asyncio
from pathlib import Path
from typing import Dict, List, Optional

import aiohttp
from tqdm import tqdm


class RemoteJudgeSubmitter:
    def __init__(self, base_url: str = "http://localhost:8000", max_workers: int = 4,
                 user_name: str = "batch", phone: str = "000"):
        """
        Args:
            base_url: judge server address
            max_workers: maximum number of submissions in flight
            user_name, phone: identity the submissions are recorded under
        """
        self.base_url = base_url.rstrip("/")
        self.submit_url = f"{self.base_url}/api/submit"
        self.max_workers = max_workers
        self.user_name = user_name
        self.phone = phone

    @staticmethod
    def _failure(message: str) -> Dict:
        return {
            "success": False,
            "verdict": None,
            "message": message,
            "time": None,
            "memory": None,
            "passed": False,
            "failed_test": None,
        }

    async def submit_code_async(self, problem_id: int, code: str,
                                session: Optional[aiohttp.ClientSession] = None) -> Dict:
        """Submit code and return the verdict in a uniform dict."""
        data = aiohttp.FormData()
        data.add_field("user_name", self.user_name)
        data.add_field("phone", self.phone)
        data.add_field("problem_id", str(problem_id))
        data.add_field("code", code)

        owns_session = session is None
        if owns_session:
            session = aiohttp.ClientSession()
        try:
            async with session.post(self.submit_url, data=data) as response:
                if response.status != 200:
                    return self._failure(f"HTTP {response.status}: {await response.text()}")
                result = await response.json()
        except aiohttp.ClientError as e:
            return self._failure(f"Submit failed: {e}")
        finally:
            if owns_session:
                await session.close()

        failed = [c for c in result.get("case_results", []) if c.get("status") != "AC"]
        return {
            "success": True,
            "verdict": result.get("status"),
            "message": result.get("message", ""),
            "time": result.get("exec_time_ms"),
            "memory": result.get("memory_kb"),
            "passed": result.get("status") == "AC",
            "failed_test": failed[0]["test_case_id"] if failed else None,
            "submission_id": result.get("submission_id"),
        }

    def submit_code(self, problem_id: int, code: str) -> Dict:
        """Blocking wrapper around submit_code_async."""
        return asyncio.run(self.submit_code_async(problem_id, code))

    async def batch_submit_async(self, problem_id: int, batch_code: List[str]) -> List[Dict]:
        semaphore = asyncio.Semaphore(self.max_workers)
        results: List[Optional[Dict]] = [None] * len(batch_code)

        async with aiohttp.ClientSession() as session:
            with tqdm(total=len(batch_code), desc=f"Submitting {problem_id}") as pbar:
                async def worker(idx: int, code: str):
                    async with semaphore:
                        results[idx] = await self.submit_code_async(problem_id, code, session)
                    pbar.update(1)

                await asyncio.gather(*(worker(idx, code) for idx, code in enumerate(batch_code)))
        return results

    def batch_submit_code(self, problem_id: int, batch_code: List[str]) -> dict:
        """
        Submit a batch of codes and summarize the outcome.

        Returns:
            dict with the accepted ratio over valid (non-transport-error)
            submissions, per-verdict counts and the accepted submissions
        """
        results = asyncio.run(self.batch_submit_async(problem_id, batch_code))

        verdicts: Dict[str, int] = {}
        passed_submissions = []
        error_cnt = 0
        for idx, (code, result) in enumerate(zip(batch_code, results)):
            if not result["success"]:
                error_cnt += 1
                continue
            verdicts[result["verdict"]] = verdicts.get(result["verdict"], 0) + 1
            if result["passed"]:
                passed_submissions.append({"index": idx, "code": code, "result": result})

        valid_cnt = len(batch_code) - error_cnt
        return {
            "accepted_ratio": len(passed_submissions) / valid_cnt if valid_cnt else 0.0,
            "errors": error_cnt,
            "verdicts": verdicts,
            "passed_submissions": passed_submissions,
        }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Submit sudoku solvers to a judge server")
    parser.add_argument("problem_id", type=int)
    parser.add_argument("files", nargs="+", type=Path, help="C++ sources defining solveSudoku")
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument("--user", default="batch")
    parser.add_argument("--phone", default="000")
    parser.add_argument("--workers", type=int, default=4)
    args = parser.parse_args(argv)

    submitter = RemoteJudgeSubmitter(args.url, args.workers, args.user, args.phone)
    codes = [f.read_text(encoding="utf-8") for f in args.files]
    if len(codes) == 1:
        result = submitter.submit_code(args.problem_id, codes[0])
        print(f"Verdict: {result['verdict'] or 'error'}")
        print(f"Time: {result['time']}ms")
        print(f"Memory: {result['memory']}KB")
        if not result["success"]:
            print(f"Error: {result['message']}")
        return 0 if result["passed"] else 1

    summary = submitter.batch_submit_code(args.problem_id, codes)
    print(f"Accepted: {len(summary['passed_submissions'])}/{len(codes)}")
    for verdict, count in sorted(summary["verdicts"].items()):
        print(f"  {verdict}: {count}")
    if summary["errors"]:
        print(f"  transport errors: {summary['errors']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
