"""
会员优惠券服务
"""
