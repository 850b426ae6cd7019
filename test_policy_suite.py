import unittest
import logging
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

logging.basicConfig(level=logging.WARNING, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")
logger = logging.getLogger("TETHER_POLICY_SUITE")

from tether.schemas.mode import AutonomyMode, RiskLevel, Verdict
from tether.schemas.requests import PermissionRequest
from tether.schemas.state import SessionAutonomyState
from tether.autonomy.config import AutonomyConfig, RiskTiers
from tether.autonomy.registry import ModeRegistry
from tether.autonomy.resolution import ModeResolver
from tether.policy.risk import RiskClassifier, classify_action, describe_risk, is_destructive_shell_command
from tether.policy.engine import PermissionDecisionEngine

# --- MOCK DATA ---

DESTRUCTIVE_COMMANDS = [
    "rm -rf /tmp/x",
    "rm -fr ./x",
    "rm -r -f build",
    "rm -f -r build",
    "rm -R dist",
    "rm --recursive old/",
    "rm *.txt",
    "rm ./.*",
    "rmdir x",
    "drop table users",
    "DROP DATABASE prod",
    "psql -c 'drop schema public cascade'",
    "truncate -s 0 app.log",
    "curl -X DELETE https://api/items/1",
    "echo 127.0.0.1 evil > /etc/hosts",
    "mkfs.ext4 /dev/sdb1",
    "dd if=/dev/zero of=/dev/sda bs=1M",
    "format c:",
    "sudo rm -rf /",
    "sudo rm file",
]

SAFE_COMMANDS = [
    "ls -la",
    "echo hi",
    "cat f.txt",
    "grep x f.txt",
    "git status",
    "ls missing 2>/dev/null",
    "echo hi > out.txt",
]


def _req(action, call_id="call_1", **args):
    return PermissionRequest(conversation_id="conv_1", call_id=call_id, action=action, args=args)


# --- RISK CLASSIFIER ---

class TestRiskClassifier(unittest.TestCase):

    def test_known_tiers(self):
        self.assertEqual(classify_action("read"), RiskLevel.LOW)
        self.assertEqual(classify_action("glob"), RiskLevel.LOW)
        self.assertEqual(classify_action("task"), RiskLevel.MEDIUM)
        self.assertEqual(classify_action("fetch"), RiskLevel.MEDIUM)
        self.assertEqual(classify_action("write"), RiskLevel.HIGH)
        self.assertEqual(classify_action("bash"), RiskLevel.HIGH)

    def test_lookup_is_case_insensitive(self):
        self.assertEqual(classify_action("READ"), RiskLevel.LOW)
        self.assertEqual(classify_action("Write"), RiskLevel.HIGH)

    def test_unknown_actions_default_to_medium(self):
        for name in ("frobnicate", "webfetch", "read_file", "", None, 42):
            self.assertEqual(classify_action(name), RiskLevel.MEDIUM, name)

    def test_destructive_corpus(self):
        for cmd in DESTRUCTIVE_COMMANDS:
            self.assertTrue(is_destructive_shell_command(cmd), cmd)

    def test_safe_corpus(self):
        for cmd in SAFE_COMMANDS:
            self.assertFalse(is_destructive_shell_command(cmd), cmd)

    def test_redirect_and_format_edges(self):
        self.assertFalse(is_destructive_shell_command("make 2>/dev/null"))
        self.assertFalse(is_destructive_shell_command("cmd >/dev/null 2>&1"))
        self.assertTrue(is_destructive_shell_command("cat x > /dev/nullx"))
        self.assertTrue(is_destructive_shell_command("echo x >> /var/log/app.log"))
        self.assertTrue(is_destructive_shell_command("git log --format=%H"))

    def test_empty_or_non_string_command(self):
        self.assertFalse(is_destructive_shell_command(""))
        self.assertFalse(is_destructive_shell_command(None))
        self.assertFalse(is_destructive_shell_command(["rm", "-rf", "/"]))

    def test_destructive_check_only_for_shell_actions(self):
        rc = RiskClassifier()
        self.assertTrue(rc.is_destructive("bash", "rm -rf /"))
        self.assertFalse(rc.is_destructive("write", "rm -rf /"))

    def test_custom_tiers(self):
        rc = RiskClassifier(RiskTiers(high=["Deploy"], medium=[], low=["peek"]), ["sh"])
        self.assertEqual(rc.classify("deploy"), RiskLevel.HIGH)
        self.assertEqual(rc.classify("peek"), RiskLevel.LOW)
        self.assertEqual(rc.classify("read"), RiskLevel.MEDIUM)
        self.assertTrue(rc.is_shell_action("SH"))

    def test_describe_risk(self):
        self.assertIn("Destructive", describe_risk("bash", "rm -rf /"))
        self.assertIn("High-risk", describe_risk("write"))
        self.assertIn("read-only", describe_risk("read"))


# --- DECISION ENGINE ---

class TestDecisionTable(unittest.TestCase):

    def setUp(self):
        self.engine = PermissionDecisionEngine()

    def test_permissive_allows_non_shell(self):
        for action in ("write", "delete", "commit", "frobnicate", "read"):
            d = self.engine.evaluate(AutonomyMode.PERMISSIVE, _req(action))
            self.assertEqual(d.verdict, Verdict.ALLOW, action)

    def test_permissive_asks_for_destructive_shell(self):
        d = self.engine.evaluate(AutonomyMode.PERMISSIVE, _req("bash", command="rm -rf build"))
        self.assertEqual(d.verdict, Verdict.ASK)
        self.assertTrue(d.destructive)
        self.assertEqual(self.engine.evaluate(AutonomyMode.PERMISSIVE, _req("bash", command="ls")).verdict, Verdict.ALLOW)

    def test_permissive_ignores_command_on_non_shell(self):
        d = self.engine.evaluate(AutonomyMode.PERMISSIVE, _req("write", command="rm -rf /"))
        self.assertEqual(d.verdict, Verdict.ALLOW)

    def test_balanced_high_risk_asks(self):
        for action in ("write", "edit", "bash", "commit"):
            d = self.engine.evaluate(AutonomyMode.BALANCED, _req(action, command="ls"))
            self.assertEqual(d.verdict, Verdict.ASK, action)

    def test_balanced_low_and_medium_allow(self):
        for action in ("read", "grep", "task", "fetch", "unknown_tool"):
            d = self.engine.evaluate(AutonomyMode.BALANCED, _req(action))
            self.assertEqual(d.verdict, Verdict.ALLOW, action)

    def test_balanced_planning_task_asks(self):
        d = self.engine.evaluate(AutonomyMode.BALANCED, _req("task", type="plan"))
        self.assertEqual(d.verdict, Verdict.ASK)
        self.assertEqual(d.reason, "balanced_planning_approval")
        self.assertEqual(self.engine.evaluate(AutonomyMode.BALANCED, _req("task", type="explore")).verdict, Verdict.ALLOW)

    def test_balanced_destructive_shell_when_shell_not_high(self):
        rc = RiskClassifier(RiskTiers(high=[], medium=["bash"], low=[]), ["bash"])
        engine = PermissionDecisionEngine(rc, planning_actions={})
        self.assertEqual(engine.evaluate(AutonomyMode.BALANCED, _req("bash", command="echo ok")).verdict, Verdict.ALLOW)
        d = engine.evaluate(AutonomyMode.BALANCED, _req("bash", command="rm -rf /var/tmp/x"))
        self.assertEqual(d.verdict, Verdict.ASK)
        self.assertEqual(d.reason, "balanced_destructive_shell")

    def test_restrictive_only_low_allows(self):
        for action in ("read", "list", "grep", "glob", "search_files"):
            self.assertEqual(self.engine.evaluate(AutonomyMode.RESTRICTIVE, _req(action)).verdict, Verdict.ALLOW, action)
        for action in ("task", "fetch", "write", "bash", "never_heard_of_it"):
            self.assertEqual(self.engine.evaluate(AutonomyMode.RESTRICTIVE, _req(action)).verdict, Verdict.ASK, action)

    def test_unknown_mode_fails_safe(self):
        d = self.engine.evaluate("chaotic", _req("read"))
        self.assertEqual(d.verdict, Verdict.ASK)
        self.assertEqual(d.reason, "unknown_mode")

    def test_mode_strings_accepted(self):
        self.assertEqual(self.engine.evaluate("Restrictive", _req("read")).verdict, Verdict.ALLOW)


class TestDecisionSideEffects(unittest.TestCase):

    def setUp(self):
        config = AutonomyConfig.defaults()
        self.resolver = ModeResolver(ModeRegistry(config))
        self.engine = PermissionDecisionEngine.from_config(config, resolver=self.resolver)
        self.state = SessionAutonomyState.fresh("conv_1", AutonomyMode.BALANCED, 5)

    def test_ask_registers_pending_and_counts(self):
        d = self.engine.decide(self.state, _req("write", call_id="c1"))
        self.assertEqual(d.verdict, Verdict.ASK)
        self.assertIn("c1", self.state.pending_approvals)
        self.assertEqual(self.state.pending_approvals["c1"].mode, AutonomyMode.BALANCED)
        self.assertEqual(self.state.metrics.approvals_requested, 1)

    def test_allow_has_no_side_effects(self):
        d = self.engine.decide(self.state, _req("read", call_id="c1"))
        self.assertEqual(d.verdict, Verdict.ALLOW)
        self.assertEqual(self.state.pending_approvals, {})
        self.assertEqual(self.state.metrics.approvals_requested, 0)

    def test_repeated_ask_for_same_call_counts_once(self):
        self.engine.decide(self.state, _req("write", call_id="c1"))
        self.engine.decide(self.state, _req("write", call_id="c1"))
        self.assertEqual(self.state.metrics.approvals_requested, 1)
        self.assertEqual(len(self.state.pending_approvals), 1)

    def test_decide_uses_effective_mode_not_stale_current(self):
        self.state.message_override = AutonomyMode.PERMISSIVE
        self.state.current_mode = AutonomyMode.RESTRICTIVE
        d = self.engine.decide(self.state, _req("write", call_id="c1"))
        self.assertEqual(d.verdict, Verdict.ALLOW)
        self.assertEqual(self.state.current_mode, AutonomyMode.PERMISSIVE)

    def test_permissive_destructive_increments_once(self):
        self.state.session_override = AutonomyMode.PERMISSIVE
        before = self.state.metrics.approvals_requested
        d = self.engine.decide(self.state, _req("bash", call_id="c9", command="sudo rm -rf /"))
        self.assertEqual(d.verdict, Verdict.ASK)
        self.assertEqual(self.state.metrics.approvals_requested, before + 1)


if __name__ == "__main__":
    unittest.main()
