import os

import pytest
import yaml

from autonuke.core.errors import TemplateError
from autonuke.template import render, render_file, write_config

TEMPLATE = """\
regions:
  {{ regions }}

blocklist:
  {{ blocklist }}

accounts:
  "{{ account_id }}":
    filters:
      IAMRole:
        - "OrganizationAccountAccessRole"
"""


def test_render_substitutes_every_slot():
    rendered = render(TEMPLATE, '111111111111', ['222222222222', '333333333333'], ['eu-west-1'])

    assert '"111111111111":' in rendered
    assert '  - 222222222222\n  - 333333333333\n' in rendered
    assert '  - eu-west-1\n' in rendered
    assert '{{' not in rendered and '}}' not in rendered
    doc = yaml.safe_load(rendered)
    assert doc['regions'] == ['eu-west-1']
    assert [str(a) for a in doc['blocklist']] == ['222222222222', '333333333333']
    assert list(doc['accounts']) == ['111111111111']


def test_other_content_is_preserved():
    rendered = render(TEMPLATE, '111111111111', ['222222222222'], ['eu-west-1'])
    assert rendered.endswith('      IAMRole:\n        - "OrganizationAccountAccessRole"\n')
    assert rendered.startswith('regions:\n')


def test_block_indentation_follows_slot():
    rendered = render("a: {{ account_id }}\nb:\n{{ blocklist }}\nc:\n    {{ regions }}\n",
                      '111111111111', ['1'], ['x', 'y'])
    assert rendered == "a: 111111111111\nb:\n- 1\nc:\n    - x\n    - y\n"


def test_missing_slot():
    with pytest.raises(TemplateError, match='regions'):
        render("accounts: {{ account_id }}\nblocklist:\n  {{ blocklist }}\n", '1', ['2'], ['eu-west-1'])


def test_unknown_slot():
    with pytest.raises(TemplateError, match='bogus'):
        render(TEMPLATE + "x: {{ bogus }}\n", '1', ['2'], ['eu-west-1'])


def test_block_slot_must_be_alone_on_line():
    template = TEMPLATE.replace("  {{ regions }}", "  regions: {{ regions }}")
    with pytest.raises(TemplateError, match='alone'):
        render(template, '1', ['2'], ['eu-west-1'])


def test_marker_like_text_is_not_a_slot():
    template = TEMPLATE + "# __REGIONS__ and __ACCOUNT_ID__ stay as written\n"
    rendered = render(template, '111111111111', ['2'], ['eu-west-1'])
    assert '# __REGIONS__ and __ACCOUNT_ID__ stay as written' in rendered


def test_render_file_and_write_config(tmp_path):
    path = tmp_path / 'config.yaml.template'
    path.write_text(TEMPLATE)
    rendered = render_file(str(path), '111111111111', ['222222222222'], ['eu-west-1'])

    out = write_config(rendered, str(tmp_path), '111111111111')
    try:
        with open(out) as f:
            assert f.read() == rendered
        assert os.path.basename(out).startswith('nuke-config-111111111111-')
    finally:
        os.remove(out)


def test_render_file_missing():
    with pytest.raises(TemplateError):
        render_file('/nonexistent/config.yaml.template', '1', ['2'], ['eu-west-1'])


def test_shipped_template_renders():
    path = os.path.join(os.path.dirname(__file__), '..', 'templates', 'nuke-config.yaml.template')
    rendered = render_file(path, '111111111111', ['222222222222'], ['eu-west-1', 'us-east-1'])
    doc = yaml.safe_load(rendered)
    assert doc['regions'] == ['eu-west-1', 'us-east-1']
    assert '111111111111' in doc['accounts']
