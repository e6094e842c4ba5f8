"""Tests for NodeCompiler: whole-graph compilation and per-kind emission."""

import ast

import pytest

from botflow.compiler import ROUTINE_SIGNATURE, NodeCompiler
from botflow.contracts.enums import CommandType, NodeKind
from botflow.contracts.errors import CompileError, ExpressionSecurityError, GraphValidationError
from botflow.core.config import CompilerSettings
from tests.fixtures.graphs import chain, hello_world, make_edge, make_node, response, trigger


def _lines(body: str) -> list[str]:
    return body.splitlines()


class TestCompile:
    def test_hello_world(self, compiler: NodeCompiler) -> None:
        body = compiler.compile(*hello_world())

        assert "await resolve(" in body
        assert "Hello!" in body
        assert body.startswith("# Auto-generated plugin code\n# DO NOT EDIT MANUALLY\n")
        assert ROUTINE_SIGNATURE in _lines(body)
        ast.parse(body)

    def test_layout(self, compiler: NodeCompiler) -> None:
        body = compiler.compile(*hello_world())

        assert _lines(body) == [
            "# Auto-generated plugin code",
            "# DO NOT EDIT MANUALLY",
            "",
            "async def execute(ctx, state, http, log, resolve):",
            "  variables = ctx.variables",
            "  pending_response = None",
            "",
            "  # Trigger [trigger]",
            "  log.info('plugin_executed')",
            "  # Response [response]",
            '  pending_response = f"Hello!"',
            "",
            "  # Send final response",
            "  if pending_response is not None:",
            "    await resolve(pending_response)",
        ]

    def test_no_trigger(self, compiler: NodeCompiler) -> None:
        with pytest.raises(CompileError, match="Plugin must have a trigger node"):
            compiler.compile([response()], [])

    def test_interpolated_response(self, compiler: NodeCompiler) -> None:
        body = compiler.compile(*chain(trigger(), response(message="Hello {name}!")))

        assert "pending_response = f\"Hello {variables['name']}!\"" in body

    def test_unreached_nodes_are_not_emitted(self, compiler: NodeCompiler) -> None:
        nodes, edges = hello_world()
        nodes.append(response("island", "never sent"))

        assert "never sent" not in compiler.compile(nodes, edges)

    def test_join_emitted_once(self, compiler: NodeCompiler) -> None:
        nodes = [trigger(), make_node("a", NodeKind.DATA, name="a"), make_node("b", NodeKind.DATA, name="b"), response()]
        edges = [
            make_edge("trigger", "a"),
            make_edge("trigger", "b"),
            make_edge("a", "response"),
            make_edge("b", "response"),
        ]

        body = compiler.compile(nodes, edges)

        assert body.count("# Response [response]") == 1

    def test_cycle_does_not_recurse(self, compiler: NodeCompiler) -> None:
        nodes = [trigger(), make_node("a", NodeKind.DATA, name="a"), response()]
        edges = [make_edge("trigger", "a"), make_edge("a", "trigger"), make_edge("a", "response")]

        body = compiler.compile(nodes, edges)

        assert body.count("log.info('plugin_executed')") == 1

    def test_labels_stay_out_of_body(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(trigger(), make_node("r", NodeKind.RESPONSE, "x\nimport os\n", message="ok"))

        body = compiler.compile(nodes, edges)

        assert "import os" not in body
        assert "  # Response [r]" in body
        ast.parse(body)


class TestBranching:
    def test_condition_arms(self, compiler: NodeCompiler) -> None:
        nodes = [
            trigger(),
            make_node("cond", NodeKind.CONDITION, condition="{count} > 5"),
            response("big", "Big"),
            response("small", "Small"),
        ]
        edges = [
            make_edge("trigger", "cond"),
            make_edge("cond", "big", "true"),
            make_edge("cond", "small", "false"),
        ]

        lines = _lines(compiler.compile(nodes, edges))

        start = lines.index("  if variables['count'] > 5:")
        assert lines[start + 2] == '    pending_response = f"Big"'
        assert lines[start + 3] == "  else:"
        assert lines[start + 5] == '    pending_response = f"Small"'

    def test_empty_arm_gets_pass(self, compiler: NodeCompiler) -> None:
        nodes = [trigger(), make_node("cond", NodeKind.CONDITION), response()]
        edges = [make_edge("trigger", "cond"), make_edge("cond", "response", "true")]

        body = compiler.compile(nodes, edges)

        assert "  else:\n    pass\n" in body
        ast.parse(body)

    def test_handle_tag_matched_by_containment(self, compiler: NodeCompiler) -> None:
        nodes = [trigger(), make_node("cond", NodeKind.CONDITION), response("yes", "Yes")]
        edges = [make_edge("trigger", "cond"), make_edge("cond", "yes", "source-true")]

        lines = _lines(compiler.compile(nodes, edges))

        assert lines[lines.index("  if True:") + 2] == '    pending_response = f"Yes"'

    def test_unsafe_condition_rejected(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(trigger(), make_node("cond", NodeKind.CONDITION, condition="__import__('os')"), response())

        with pytest.raises(ExpressionSecurityError):
            compiler.compile(nodes, edges)

    @pytest.mark.parametrize(
        ("operator", "expected"),
        [
            ("==", "if f\"{variables['a']}\" == f\"x\":"),
            ("!==", "if f\"{variables['a']}\" != f\"x\":"),
            (">=", "if to_number(variables['a']) >= to_number(f\"x\"):"),
            ("includes", "if f\"x\" in f\"{variables['a']}\":"),
            ("startsWith", "if f\"{variables['a']}\".startswith(f\"x\"):"),
        ],
    )
    def test_comparison(self, compiler: NodeCompiler, operator: str, expected: str) -> None:
        node = make_node("cmp", NodeKind.COMPARISON, operator=operator, left="{a}", right="x")

        body = compiler.compile(*chain(trigger(), node, response()))

        assert f"  {expected}" in _lines(body)

    def test_permission_blacklist(self, compiler: NodeCompiler) -> None:
        node = make_node("perm", NodeKind.PERMISSION, checkType="role", values="1,2", mode="blacklist")

        body = compiler.compile(*chain(trigger(), node))

        assert "  if not (ctx.has_any_role(['1', '2'])):" in _lines(body)

    def test_permission_user_ids(self, compiler: NodeCompiler) -> None:
        node = make_node("perm", NodeKind.PERMISSION, values=["10", "20"])

        assert "  if ctx.user_id in ['10', '20']:" in _lines(compiler.compile(*chain(trigger(), node)))

    def test_deep_condition_chain_indentation_capped(self, compiler: NodeCompiler) -> None:
        """55 nested conditions compile and no line is indented beyond 100 spaces."""
        conditions = [make_node(f"c{i}", NodeKind.CONDITION, condition=f"{{v}} > {i}") for i in range(55)]
        nodes = [trigger(), *conditions, response()]
        edges = [make_edge("trigger", "c0")]
        edges += [make_edge(f"c{i}", f"c{i + 1}", "true") for i in range(54)]
        edges.append(make_edge("c54", "response", "true"))

        body = compiler.compile(nodes, edges)

        indents = [len(line) - len(line.lstrip(" ")) for line in _lines(body) if line.strip()]
        assert max(indents) <= 100


class TestLoops:
    def test_for_loop(self, compiler: NodeCompiler) -> None:
        nodes = [
            trigger(),
            make_node("loop", NodeKind.FOR_LOOP, arrayVar="{numbers}", iteratorVar="n"),
            response("body", "Item {n}"),
            response("done", "Done"),
        ]
        edges = [
            make_edge("trigger", "loop"),
            make_edge("loop", "body", "loop-body"),
            make_edge("loop", "done", "complete"),
        ]

        lines = _lines(compiler.compile(nodes, edges))

        start = lines.index("  for _count_1, _item_1 in enumerate(as_list(variables['numbers'])):")
        assert lines[start + 1 : start + 4] == [
            "    if _count_1 >= 1000:",
            "      break",
            "    variables['n'] = _item_1",
        ]
        assert "    pending_response = f\"Item {variables['n']}\"" in lines
        assert '  pending_response = f"Done"' in lines

    def test_while_loop_cap(self, compiler: NodeCompiler) -> None:
        nodes = [trigger(), make_node("loop", NodeKind.WHILE_LOOP, condition="{n} < 10", maxIterations=3), response()]
        edges = [make_edge("trigger", "loop"), make_edge("loop", "response", "complete")]

        lines = _lines(compiler.compile(nodes, edges))

        assert lines[lines.index("  _count_1 = 0") + 1 :][:3] == [
            "  while (variables['n'] < 10) and _count_1 < 3:",
            "    _count_1 += 1",
            "  # Response [response]",
        ]

    def test_default_cap_from_settings(self) -> None:
        compiler = NodeCompiler(CompilerSettings(default_max_iterations=7))
        nodes, edges = chain(trigger(), make_node("loop", NodeKind.WHILE_LOOP))

        assert "  while (False) and _count_1 < 7:" in _lines(compiler.compile(nodes, edges))


class TestDataNodes:
    def test_variable_sources(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(
            trigger(),
            make_node("v1", NodeKind.VARIABLE, name="city", type="user_input"),
            make_node("v2", NodeKind.VARIABLE, name="roll", type="random_number", min=1, max=6),
            make_node("v3", NodeKind.VARIABLE, name="who", type="user_name"),
            make_node("v4", NodeKind.VARIABLE, name="cfg", type="literal", value={"a": [1, 2]}),
            make_node("v5", NodeKind.VARIABLE, name="greeting", value="Hi {who}"),
        )

        lines = _lines(compiler.compile(nodes, edges))

        assert "  variables['city'] = ctx.option('city')" in lines
        assert "  variables['roll'] = random_int(1, 6)" in lines
        assert "  variables['who'] = ctx.user_name" in lines
        assert "  variables['cfg'] = {'a': [1, 2]}" in lines
        assert "  variables['greeting'] = f\"Hi {variables['who']}\"" in lines

    def test_braced_names_are_unwrapped(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(
            trigger(),
            make_node("v1", NodeKind.VARIABLE, name="{city}", type="user_input"),
            make_node("v2", NodeKind.VARIABLE, name="{ greeting }", value="Hi {city}"),
            make_node("h", NodeKind.HTTP_REQUEST, url="https://api.example.com", response_var="{weather}"),
        )

        lines = _lines(compiler.compile(nodes, edges))

        assert "  variables['city'] = ctx.option('city')" in lines
        assert "  variables['greeting'] = f\"Hi {variables['city']}\"" in lines
        assert "    variables['weather_status'] = _response_3.status_code" in lines
        assert "    variables['weather_error'] = str(_exc_3)" in lines

    def test_data_defaults_to_server_name(self, compiler: NodeCompiler) -> None:
        body = compiler.compile(*chain(trigger(), make_node("d", NodeKind.DATA)))

        assert "  variables['data'] = ctx.server_name" in _lines(body)

    @pytest.mark.parametrize(
        ("config", "expected"),
        [
            ({"operation": "create", "items": "a, b"}, "variables['array'] = split_items(f\"a, b\")"),
            ({"operation": "length", "arrayVar": "xs", "resultVar": "n"}, "variables['n'] = len(as_list(variables['xs']))"),
            (
                {"operation": "filter", "arrayVar": "xs", "expression": "item > 2", "resultVar": "big"},
                "variables['big'] = [item for item in as_list(variables['xs']) if (item > 2)]",
            ),
            (
                {"operation": "map", "arrayVar": "xs", "expression": "item * 2", "resultVar": "doubled"},
                "variables['doubled'] = [(item * 2) for index, item in enumerate(as_list(variables['xs']))]",
            ),
            ({"operation": "push", "arrayVar": "{xs}", "item": "{x}"}, "ensure_list(variables, 'xs').append(f\"{variables['x']}\")"),
            ({"operation": "join", "arrayVar": "xs", "separator": "\\n"}, "variables['array'] = join_items(variables['xs'], '\\n')"),
        ],
    )
    def test_array_operations(self, compiler: NodeCompiler, config: dict[str, str], expected: str) -> None:
        body = compiler.compile(*chain(trigger(), make_node("arr", NodeKind.ARRAY_OPERATION, **config)))

        assert f"  {expected}" in _lines(body)

    @pytest.mark.parametrize(
        ("config", "expected"),
        [
            ({"operation": "concat", "strings": ["a", "{b}"]}, "variables['result'] = f\"a{variables['b']}\""),
            ({"operation": "uppercase", "input": "{s}"}, "variables['result'] = f\"{variables['s']}\".upper()"),
            (
                {"operation": "replace", "input": "{s}", "search": ".*", "replace": "x"},
                "variables['result'] = f\"{variables['s']}\".replace('.*', f\"x\")",
            ),
            ({"operation": "substring", "input": "{s}", "start": "1", "end": "3"}, "variables['result'] = substring(f\"{variables['s']}\", f\"1\", f\"3\")"),
            (
                {"operation": "condition", "input": "{c}", "conditions": [{"if": "red, crimson", "then": "warm"}], "default": "?"},
                "variables['result'] = {'red': 'warm', 'crimson': 'warm'}.get(f\"{variables['c']}\", '?')",
            ),
        ],
    )
    def test_string_operations(self, compiler: NodeCompiler, config: dict[str, object], expected: str) -> None:
        body = compiler.compile(*chain(trigger(), make_node("str", NodeKind.STRING_OPERATION, **config)))

        assert f"  {expected}" in _lines(body)

    def test_object_operations(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(
            trigger(),
            make_node("o1", NodeKind.OBJECT_OPERATION, pairs=[{"key": "name", "value": "{user}"}]),
            make_node("o2", NodeKind.OBJECT_OPERATION, operation="set", key="age", value="3"),
            make_node("o3", NodeKind.OBJECT_OPERATION, operation="keys", outputVar="keys"),
        )

        lines = _lines(compiler.compile(nodes, edges))

        assert "  variables['object'] = {'name': f\"{variables['user']}\"}" in lines
        assert "  ensure_dict(variables, 'object')['age'] = f\"3\"" in lines
        assert "  variables['keys'] = object_keys(variables['object'])" in lines

    def test_math(self, compiler: NodeCompiler) -> None:
        node = make_node("m", NodeKind.MATH_OPERATION, operation="divide", value1="{a}", value2=2)

        body = compiler.compile(*chain(trigger(), node))

        assert "  variables['result'] = calculate('divide', variables['a'], f\"2\")" in _lines(body)

    def test_json_extract(self, compiler: NodeCompiler) -> None:
        node = make_node("j", NodeKind.JSON, operation="extract", inputVar="weather", outputVar="temp", path="main.temp")

        lines = _lines(compiler.compile(*chain(trigger(), node)))

        assert "    variables['temp'] = navigate(variables['weather'], [('property', 'main'), ('property', 'temp')])" in lines
        assert "    variables['temp_error'] = str(_exc_1)" in lines


class TestIoNodes:
    def test_http_request(self, compiler: NodeCompiler) -> None:
        node = make_node(
            "http",
            NodeKind.HTTP_REQUEST,
            method="post",
            url="https://api.example.com/{city}",
            headers={"Accept": "application/json"},
            body={"q": 1},
            responseVar="weather",
        )

        lines = _lines(compiler.compile(*chain(trigger(), node)))

        assert (
            "    _response_1 = await http.request('POST', f\"https://api.example.com/{variables['city']}\", "
            "headers={'Accept': 'application/json'}, content=f\"{{\\\"q\\\": 1}}\")"
        ) in lines
        assert "    variables['weather'] = _response_1.json()" in lines
        assert "    variables['weather_status'] = _response_1.status_code" in lines
        assert "    variables['weather_error'] = str(_exc_1)" in lines

    def test_get_drops_body(self, compiler: NodeCompiler) -> None:
        node = make_node("http", NodeKind.HTTP_REQUEST, url="https://x.test", body="ignored")

        assert "content=" not in compiler.compile(*chain(trigger(), node))

    def test_actions(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(
            trigger(),
            make_node("a1", NodeKind.ACTION, actionType="log", message="Hi {u}"),
            make_node("a2", NodeKind.ACTION, actionType="wait", duration=250),
            make_node("a3", NodeKind.ACTION, actionType="set_state", key="last", value="{u}"),
        )

        lines = _lines(compiler.compile(nodes, edges))

        assert "  log.info('plugin_log', message=f\"Hi {variables['u']}\")" in lines
        assert "  await sleep_ms(250)" in lines
        assert "  await state.set('last', f\"{variables['u']}\")" in lines

    def test_database(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(
            trigger(),
            make_node("d1", NodeKind.DATABASE, operation="set", key="score:{user}", value="{points}"),
            make_node("d2", NodeKind.DATABASE, operation="list", resultVar="keys"),
        )

        lines = _lines(compiler.compile(nodes, edges))

        assert "  await state.set(f\"score:{variables['user']}\", f\"{variables['points']}\")" in lines
        assert "  variables['keys'] = await state.list()" in lines

    def test_embed(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(
            trigger(),
            make_node(
                "e",
                NodeKind.EMBED_BUILDER,
                title="Weather",
                color="#ff0000",
                fields=[{"name": "Temp", "value": "{t}", "inline": True}],
                footer={"text": "via api"},
            ),
            make_node("send", NodeKind.EMBED_RESPONSE, ephemeral=True),
        )

        lines = _lines(compiler.compile(nodes, edges))

        assert "  _embed_1['color'] = 16711680" in lines
        assert "  _embed_1['fields'] = [{'name': f\"Temp\", 'value': f\"{variables['t']}\", 'inline': True}]" in lines
        assert "  _embed_1['footer'] = {'text': f\"via api\"}" in lines
        assert "  variables['embed'] = _embed_1" in lines
        assert "  pending_response = {'embeds': [variables['embed']], 'ephemeral': True}" in lines
        assert "    await resolve(pending_response, already_sent=True)" in lines
        assert "    variables['_message_id'] = _sent_2.id" in lines

    def test_bad_color(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(trigger(), make_node("e", NodeKind.EMBED_BUILDER, color="red"))

        with pytest.raises(CompileError, match="Invalid embed color"):
            compiler.compile(nodes, edges)


class TestDiscordActions:
    @pytest.mark.parametrize(
        ("config", "expected"),
        [
            ({"action": "send_message", "message": "hi"}, "await ctx.send_message(ctx.channel_id, f\"hi\")"),
            ({"action": "send_dm", "userId": "{target}", "message": "hi"}, "await ctx.send_dm(f\"{variables['target']}\", f\"hi\")"),
            ({"action": "add_reaction", "emoji": "✅"}, "await ctx.add_reaction('✅')"),
            ({"action": "check_role", "roleId": "99"}, "variables['hasRole'] = ctx.has_role('99')"),
            ({"action": "kick_member"}, "await ctx.kick_member(ctx.user_id, reason=f\"Kicked by bot\")"),
            (
                {"action": "ban_member", "reason": "spam", "deleteDays": 1},
                "await ctx.ban_member(ctx.user_id, reason=f\"spam\", delete_days=1)",
            ),
            ({"action": "timeout_member", "time": 60000}, "await ctx.timeout_member(ctx.user_id, 60000, reason=f\"Timed out by bot\")"),
            (
                {"action": "collect_reactions", "outputVar": "votes"},
                "variables['votes'] = await ctx.collect_reactions(ctx.channel_id, variables['_message_id'], '👍', 30000)",
            ),
            (
                {"action": "setup_single_choice_voting"},
                "ctx.setup_single_choice_voting(variables['_sent_message'], as_list(variables['emojis']), variables['duration_ms'])",
            ),
            ({"action": "delete_channel", "channelId": "5"}, "await ctx.delete_channel(f\"5\")"),
        ],
    )
    def test_action_calls(self, compiler: NodeCompiler, config: dict[str, object], expected: str) -> None:
        lines = _lines(compiler.compile(*chain(trigger(), make_node("act", NodeKind.DISCORD_ACTION, **config))))

        assert "  try:" in lines
        assert f"    {expected}" in lines
        assert any(line.startswith("    log.error('discord_action_failed'") for line in lines)

    def test_failure_stored_under_action_name(self, compiler: NodeCompiler) -> None:
        lines = _lines(compiler.compile(*chain(trigger(), make_node("act", NodeKind.DISCORD_ACTION, action="kick_member"))))

        assert "    variables['kick_member_error'] = str(_exc_1)" in lines

    def test_failure_stored_under_output_var(self, compiler: NodeCompiler) -> None:
        config = {"action": "create_channel", "outputVar": "room"}
        lines = _lines(compiler.compile(*chain(trigger(), make_node("act", NodeKind.DISCORD_ACTION, **config))))

        assert "    variables['room_error'] = str(_exc_1)" in lines


class TestEveryKindCompiles:
    @pytest.mark.parametrize("kind", [kind for kind in NodeKind if kind != NodeKind.TRIGGER])
    def test_default_config_body_parses(self, compiler: NodeCompiler, kind: NodeKind) -> None:
        body = compiler.compile(*chain(trigger(), make_node("n", kind), response()))

        ast.parse(body)


class TestCompilePlugin:
    def test_packages_plugin(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(
            trigger(command="weather", commandType="both"),
            make_node("v", NodeKind.VARIABLE, name="city", type="user_input", description="City name"),
            make_node("w", NodeKind.VARIABLE, name="units", type="user_input", required=False),
            make_node("x", NodeKind.VARIABLE, name="ignored", type="user_name"),
            response(),
        )

        plugin = compiler.compile_plugin("p1", nodes, edges, name="Weather")

        assert plugin.id == "p1"
        assert plugin.name == "Weather"
        assert plugin.enabled
        assert plugin.trigger.command == "weather"
        assert plugin.trigger.command_type == CommandType.BOTH
        assert [(o.name, o.description, o.required) for o in plugin.options] == [
            ("city", "City name", True),
            ("units", "Enter units", False),
        ]
        assert plugin.body == compiler.compile(nodes, edges)

    def test_braced_option_names_are_unwrapped(self, compiler: NodeCompiler) -> None:
        nodes, edges = chain(trigger(), make_node("v", NodeKind.VARIABLE, name="{city}", type="user_input"), response())

        plugin = compiler.compile_plugin("p1", nodes, edges)

        assert [(o.name, o.description) for o in plugin.options] == [("city", "Enter city")]

    def test_name_defaults_to_id(self, compiler: NodeCompiler) -> None:
        assert compiler.compile_plugin("p1", *hello_world()).name == "p1"

    def test_validation_errors_collected(self, compiler: NodeCompiler) -> None:
        with pytest.raises(GraphValidationError) as exc_info:
            compiler.compile_plugin("p1", [make_node("v", NodeKind.VARIABLE)], [])

        assert len(exc_info.value.errors) == 3

    def test_complexity_errors_included(self) -> None:
        compiler = NodeCompiler(CompilerSettings(max_nodes=1))

        with pytest.raises(GraphValidationError, match="the limit is 1"):
            compiler.compile_plugin("p1", *hello_world())
