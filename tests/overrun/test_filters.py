# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for EC2 filter token parsing."""

import pytest
import string
from ecs_tools.overrun.filters import (
    FILTER_TAG_NAME,
    Filter,
    filter_string,
    parse_ec2_filter,
    read_filter_args,
    to_boto_filters,
)
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError


NAMES = st.text(alphabet=string.ascii_lowercase + ':-', min_size=1).filter(
    lambda name: not name.startswith('-')
)
VALUES = st.lists(
    st.text(alphabet=string.ascii_letters + string.digits + '-_.', min_size=1), min_size=1
)


class TestParseEc2Filter:
    """Test parse_ec2_filter function."""

    def test_long_form(self):
        """Test the aws-cli Name=,Values= form."""
        result = parse_ec2_filter('Name=tag:Env,Values=dev,qa')

        assert result == Filter(name='tag:Env', values=('dev', 'qa'))

    def test_long_form_name_is_captured_group(self):
        """Test the filter name excludes the Name= prefix and the values."""
        result = parse_ec2_filter('Name=vpc-id,Values=vpc-1')

        assert result.name == 'vpc-id'
        assert result.values == ('vpc-1',)

    def test_short_form(self):
        """Test the name=values form."""
        result = parse_ec2_filter('tag:Name=web,worker')

        assert result == Filter(name='tag:Name', values=('web', 'worker'))

    def test_short_form_splits_on_first_equals(self):
        """Test values may contain '='."""
        result = parse_ec2_filter('tag:Query=a=b')

        assert result == Filter(name='tag:Query', values=('a=b',))

    @pytest.mark.parametrize(
        'token,name',
        [
            ('i-0123456789abcdef0', 'instance-id'),
            ('subnet-0abc', 'subnet-id'),
            ('vpc-0abc', 'vpc-id'),
            ('sg-0abc', 'group-id'),
        ],
    )
    def test_resource_id_shorthand(self, token, name):
        """Test resource IDs map to their filter attribute."""
        assert parse_ec2_filter(token) == Filter(name=name, values=(token,))

    def test_default_name_fallback(self):
        """Test plain words match the default attribute."""
        assert parse_ec2_filter('my-host', FILTER_TAG_NAME) == Filter(
            name='tag:Name', values=('my-host',)
        )

    def test_not_recognized_without_default(self):
        """Test plain words are not filters without a default attribute."""
        assert parse_ec2_filter('my-host') is None

    @pytest.mark.parametrize('token', ['-x', '--fargate', '-x=1,2', '-', '-i-0abc'])
    def test_dash_tokens_never_recognized(self, token):
        """Test tokens starting with '-' end filter parsing."""
        assert parse_ec2_filter(token, FILTER_TAG_NAME) is None

    @given(token=st.text(min_size=0).map(lambda s: '-' + s))
    def test_dash_tokens_property(self, token):
        """Property test: no token starting with '-' is a filter."""
        assert parse_ec2_filter(token, FILTER_TAG_NAME) is None

    @given(name=NAMES, values=VALUES)
    def test_short_form_property(self, name, values):
        """Property test: name=v1,v2 parses to the same name and values."""
        token = f'{name}={",".join(values)}'

        assert parse_ec2_filter(token) == Filter(name=name, values=tuple(values))

    @given(name=NAMES, values=VALUES)
    def test_long_form_property(self, name, values):
        """Property test: the string form of a filter parses back to it."""
        expected = Filter(name=name, values=tuple(values))

        assert parse_ec2_filter(str(expected)) == expected


class TestFilter:
    """Test the Filter model."""

    def test_to_boto(self):
        """Test rendering for boto3 Filters parameters."""
        assert Filter(name='vpc-id', values=('vpc-1', 'vpc-2')).to_boto() == {
            'Name': 'vpc-id',
            'Values': ['vpc-1', 'vpc-2'],
        }

    def test_equality_is_structural(self):
        """Test filters with equal fields are equal."""
        assert Filter(name='a', values=('1',)) == Filter(name='a', values=('1',))
        assert Filter(name='a', values=('1',)) != Filter(name='a', values=('2',))

    def test_requires_values(self):
        """Test a filter needs at least one value."""
        with pytest.raises(ValidationError):
            Filter(name='a', values=())

    def test_is_immutable(self):
        """Test filters cannot be modified."""
        f = Filter(name='a', values=('1',))
        with pytest.raises(ValidationError):
            f.name = 'b'


class TestReadFilterArgs:
    """Test read_filter_args function."""

    def test_stops_at_dash_token(self):
        """Test consumption ends at the first token starting with '-'."""
        count, filters = read_filter_args(['web', 'subnet-1', '-x', 'other'])

        assert count == 2
        assert filters == [
            Filter(name='tag:Name', values=('web',)),
            Filter(name='subnet-id', values=('subnet-1',)),
        ]

    def test_empty(self):
        """Test no tokens yield no filters."""
        assert read_filter_args([]) == (0, [])

    def test_without_default_stops_at_plain_word(self):
        """Test plain words stop consumption without a default attribute."""
        count, filters = read_filter_args(['a=1', 'plain', 'b=2'], default_name=None)

        assert count == 1
        assert filters == [Filter(name='a', values=('1',))]


class TestFilterString:
    """Test filter_string and to_boto_filters functions."""

    def test_filter_string(self):
        """Test filters are joined with single spaces."""
        filters = [Filter(name='a', values=('1', '2')), Filter(name='b', values=('3',))]

        assert filter_string(filters) == 'Name=a,Values=1,2 Name=b,Values=3'

    def test_filter_string_empty(self):
        """Test no filters render as an empty string."""
        assert filter_string([]) == ''

    def test_to_boto_filters(self):
        """Test each filter is rendered in order."""
        filters = [Filter(name='a', values=('1',)), Filter(name='b', values=('2',))]

        assert to_boto_filters(filters) == [
            {'Name': 'a', 'Values': ['1']},
            {'Name': 'b', 'Values': ['2']},
        ]
