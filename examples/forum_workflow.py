#!/usr/bin/env python3
"""
End-to-end workflow for Gitorum.

This script demonstrates:
1. Forum setup with a shared bare remote
2. Categories, threads and replies
3. A second replica joining through a join request
4. Auto-approval during the admin's sync
5. Moderation with tombstones
"""

import subprocess
import tempfile
from pathlib import Path

from gitorum.crypto import generate_identity
from gitorum.models import SigStatus
from gitorum.node import ForumNode
from gitorum.repo import Repo


def main():
    print("=== Gitorum End-to-End Workflow ===\n")
    workdir = Path(tempfile.mkdtemp(prefix="gitorum-"))

    # Step 1: Shared remote
    print("Step 1: Creating shared remote...")
    remote = workdir / "forum.git"
    subprocess.run(["git", "init", "-q", "--bare", str(remote)], check=True)
    subprocess.run(["git", "symbolic-ref", "HEAD", "refs/heads/main"], cwd=remote, check=True)
    print(f"  ✓ Bare remote at {remote}")

    # Step 2: Admin sets up the forum
    print("\nStep 2: Setting up forum as alice...")
    alice = ForumNode(workdir / "alice", identity=generate_identity("alice"), identity_path=workdir / "alice.toml")
    alice.setup("alice", "Demo Forum", "A forum in a git repository", remote_url=str(remote))
    alice.configure(auto_approve_keys=True)
    print(f"  ✓ Forum created, admin key {alice.identity.fingerprint}")

    # Step 3: Content
    print("\nStep 3: Posting...")
    alice.create_category("general", "General", "Anything goes")
    alice.new_thread("general", "welcome", "Welcome to the demo forum!")
    alice.reply("general", "welcome", "Replies are signed too.")
    print("  ✓ Category, thread and reply committed")

    # Step 4: Second replica joins
    print("\nStep 4: bob clones the forum and asks to join...")
    bob_repo = Repo.clone(str(remote), workdir / "bob")
    bob = ForumNode(bob_repo.path, identity=generate_identity("bob"), repo=bob_repo,
                    identity_path=workdir / "bob.toml")
    bob.request_membership()
    bob.reply("general", "welcome", "Hi, I'm bob.")
    print("  ✓ Join request and reply pushed")

    # Step 5: Admin sync approves the request
    print("\nStep 5: alice syncs...")
    approved = alice.sync()
    print(f"  ✓ Auto-approved: {[r.username for r in approved]}")
    bob.sync()

    # Step 6: Moderation
    print("\nStep 6: Moderating...")
    spam = alice.reply("general", "welcome", "This reply will be removed.")
    alice.delete_post("general", "welcome", spam.filename)
    print(f"  ✓ Tombstoned {spam.filename}")

    # Step 7: Verify everything
    print("\nStep 7: Verifying thread...")
    thread = alice.thread("general", "welcome")
    for post in thread.posts:
        mark = "✓" if post.sig_status == SigStatus.VALID else "✗"
        print(f"  {mark} @{post.author}: {post.body} [{post.sig_status.value}]")

    status = alice.status()
    print(f"\n  Forum: {status.forum_name}")
    print(f"  Admin: {status.is_admin}")
    print(f"  Synced: {status.synced}")

    print("\n=== Workflow Complete! ===")


if __name__ == '__main__':
    main()
